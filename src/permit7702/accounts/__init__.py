from .simple7702 import Simple7702SmartAccount

__all__ = ["Simple7702SmartAccount"]
