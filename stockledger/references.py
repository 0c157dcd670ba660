"""
Movement references — opaque correlation tokens.

The ledger never resolves what a reference points at; it only stores it
so that movements can be grouped by the business event that caused them.

Accepted inputs:
    Reference('purchase_order', 'PO-1001')
    ('shipment', 42)
    <any Django model instance>   -> ('app_label.model', pk)
"""

import uuid
from typing import NamedTuple


class Reference(NamedTuple):
    type: str
    id: str

    @classmethod
    def of(cls, value) -> 'Reference | None':
        if value is None:
            return None
        if isinstance(value, Reference):
            return value
        if isinstance(value, tuple) and len(value) == 2:
            return cls(str(value[0]), str(value[1]))
        meta = getattr(value, '_meta', None)
        if meta is not None and getattr(value, 'pk', None) is not None:
            return cls(meta.label_lower, str(value.pk))
        raise TypeError(f"Cannot use {value!r} as a movement reference")

    @classmethod
    def transfer(cls) -> 'Reference':
        return cls('transfer', uuid.uuid4().hex)

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"
