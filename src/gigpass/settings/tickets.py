"""Settings for ticket document processing and delivery."""

from decouple import config

# Uploads larger than this are rejected before any processing happens.
TICKET_MAX_UPLOAD_SIZE = config("TICKET_MAX_UPLOAD_SIZE", default=25 * 1024 * 1024, cast=int)

# Only PDF sources are accepted.
TICKET_ALLOWED_MIME_TYPES = ("application/pdf",)

# Preview thumbnails shown to the admin when choosing pages.
TICKET_PREVIEW_SCALE = config("TICKET_PREVIEW_SCALE", default=0.5, cast=float)
TICKET_PREVIEW_QUALITY = config("TICKET_PREVIEW_QUALITY", default=80, cast=int)

# Raster fallback used when a page cannot be extracted structurally.
TICKET_RASTER_SCALE = config("TICKET_RASTER_SCALE", default=3.0, cast=float)
TICKET_RASTER_QUALITY = config("TICKET_RASTER_QUALITY", default=95, cast=int)

# Lifetime of signed read URLs for ticket documents, in seconds.
TICKET_SIGNED_URL_TTL = config("TICKET_SIGNED_URL_TTL", default=300, cast=int)
