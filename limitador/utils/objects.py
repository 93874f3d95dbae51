from typing import Any, Callable, Generic, Optional, Type, TypeVar, cast

RT = TypeVar("RT")


class cached_property(Generic[RT]):
    """Build a desired object once per resource instance.

    The value is stored in the instance ``__dict__`` under the property name,
    so later lookups never reach the descriptor. Deleting the attribute drops
    the stored object and the next access builds it again.

    Examples:
        .. sourcecode:: python

            @cached_property
            def deployment(self) -> V1Deployment:
                return self.prepare_deployment()

            del limitador.deployment  # rebuilt on next access
    """

    def __init__(self, fget: Callable[[Any], RT], doc: Optional[str] = None) -> None:
        self.fget = fget
        self.__doc__ = doc or fget.__doc__
        self.__name__ = fget.__name__

    def __set_name__(self, owner: Type, name: str) -> None:
        self.__name__ = name

    def __get__(self, obj: Any, type: Optional[Type] = None) -> RT:
        if obj is None:
            return cast(RT, self)
        value = self.fget(obj)
        obj.__dict__[self.__name__] = value
        return value
