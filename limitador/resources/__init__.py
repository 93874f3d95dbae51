from .limitador import Limitador

__all__ = ["Limitador"]
