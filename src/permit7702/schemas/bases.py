"""
Base Schema Models

Foundation classes shared by the wire-level models of this package
(user operations, receipts, authorizations, chain configuration).

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON output
    - RpcModel: CanonicalModel that parses JSON-RPC hex quantities

Dependencies:
    - pydantic: For data validation and serialization
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict

from ..utils import canonical_json


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Ensures a consistent, deterministic JSON representation (sorted keys, no
    extra whitespace) which makes models safe to compare, hash and log.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to canonical JSON string.

        ``model_dump(mode="json")`` turns nested models, enums and bytes into
        plain JSON types; ``canonical_json`` then sorts keys and strips
        whitespace.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        return canonical_json(self.model_dump(mode="json"))

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class RpcModel(CanonicalModel):
    """
    Base for payloads returned by nodes and bundlers.

    Bundlers add vendor-specific keys to their responses; those are kept
    rather than rejected.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")
