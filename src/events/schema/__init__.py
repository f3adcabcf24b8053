"""Events schema package.

Schemas are grouped by the models they describe and re-exported here.
"""

from .event import EventSchema, TicketTypeSchema
from .ticket import (
    AdminClaimSchema,
    AssignTicketSchema,
    ClaimSchema,
    CommitPagesSchema,
    DecompositionResultSchema,
    IngestResponseSchema,
    InventoryIssueSchema,
    PagePreviewSchema,
    PageResultSchema,
    ReconcileResponseSchema,
    TicketSchema,
    TicketUploadSchema,
)

__all__ = [
    "AdminClaimSchema",
    "AssignTicketSchema",
    "ClaimSchema",
    "CommitPagesSchema",
    "DecompositionResultSchema",
    "EventSchema",
    "IngestResponseSchema",
    "InventoryIssueSchema",
    "PagePreviewSchema",
    "PageResultSchema",
    "ReconcileResponseSchema",
    "TicketSchema",
    "TicketTypeSchema",
    "TicketUploadSchema",
]
