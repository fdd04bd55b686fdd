from .mapping_store import MappingStore
from .workspace_store import NamespaceStore
from .user_store import UserStore

__all__ = ["MappingStore", "NamespaceStore", "UserStore"]
