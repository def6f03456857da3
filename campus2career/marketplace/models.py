"""Read models for marketplace resources.

The marketplace API returns JSON:API style documents::

    {"data": {"id": ..., "type": ..., "attributes": {...}, "relationships": {...}},
     "included": [...]}

These models keep only the fields the reconciler and dispatcher read.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MarketplaceUser(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    public_data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "MarketplaceUser":
        attributes = resource.get("attributes") or {}
        profile = attributes.get("profile") or {}
        return cls(
            id=_resource_id(resource),
            email=attributes.get("email"),
            display_name=profile.get("displayName"),
            public_data=profile.get("publicData") or {},
        )


class Listing(BaseModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    author_id: Optional[str] = None
    public_data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "Listing":
        attributes = resource.get("attributes") or {}
        return cls(
            id=_resource_id(resource),
            title=attributes.get("title"),
            description=attributes.get("description"),
            author_id=_relationship_id(resource, "author"),
            public_data=attributes.get("publicData") or {},
        )


class Transaction(BaseModel):
    id: str
    last_transition: Optional[str] = None
    process_name: Optional[str] = None
    listing_id: Optional[str] = None
    customer_id: Optional[str] = None
    provider_id: Optional[str] = None

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "Transaction":
        attributes = resource.get("attributes") or {}
        return cls(
            id=_resource_id(resource),
            last_transition=attributes.get("lastTransition"),
            process_name=attributes.get("processName"),
            listing_id=_relationship_id(resource, "listing"),
            customer_id=_relationship_id(resource, "customer"),
            provider_id=_relationship_id(resource, "provider"),
        )


class TransactionContext(BaseModel):
    """A transaction together with the related resources requested via ``include``."""

    transaction: Transaction
    listing: Optional[Listing] = None
    customer: Optional[MarketplaceUser] = None
    provider: Optional[MarketplaceUser] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "TransactionContext":
        transaction = Transaction.from_resource(document["data"])
        included = _index_included(document.get("included") or [])
        listing = included.get(("listing", transaction.listing_id))
        customer = included.get(("user", transaction.customer_id))
        provider = included.get(("user", transaction.provider_id))
        return cls(
            transaction=transaction,
            listing=Listing.from_resource(listing) if listing else None,
            customer=MarketplaceUser.from_resource(customer) if customer else None,
            provider=MarketplaceUser.from_resource(provider) if provider else None,
        )


def _resource_id(resource: Dict[str, Any]) -> str:
    raw = resource.get("id")
    # Some SDK serializers wrap ids as {"uuid": "..."}
    if isinstance(raw, dict):
        raw = raw.get("uuid")
    if not raw:
        raise KeyError("resource has no id")
    return str(raw)


def _relationship_id(resource: Dict[str, Any], name: str) -> Optional[str]:
    related = ((resource.get("relationships") or {}).get(name) or {}).get("data")
    if not related:
        return None
    return _resource_id(related)


def _index_included(included: List[Dict[str, Any]]) -> Dict[tuple, Dict[str, Any]]:
    index = {}
    for resource in included:
        try:
            index[(resource.get("type"), _resource_id(resource))] = resource
        except KeyError:
            continue
    return index
