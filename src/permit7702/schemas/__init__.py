from .bases import CanonicalModel, RpcModel

__all__ = [
    "CanonicalModel",
    "RpcModel",
]
