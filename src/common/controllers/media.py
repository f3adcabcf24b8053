"""Signed URL validation endpoint for the reverse proxy's forward-auth.

Flow:
    1. Client requests /media/protected/...pdf?exp=...&sig=...
    2. The proxy calls /api/media/validate/protected/...pdf?exp=...&sig=...
    3. 200 lets the proxy serve the file, 401 denies it.

The endpoint is not authenticated; the HMAC signature is the credential.
"""

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from ninja_extra import api_controller, route

from common.signing import is_protected_path, parse_signed_url_params, verify_signature
from common.throttling import MediaValidationThrottle


@api_controller("/media", tags=["Media"])
class MediaValidationController:
    """Validates signed media URLs on behalf of the reverse proxy."""

    @route.get(
        "/validate/{path:path}",
        url_name="validate_media",
        response={200: None, 401: None},
        throttle=MediaValidationThrottle(),
        exclude_unset=True,
    )
    def validate_media(self, request: HttpRequest, path: str) -> HttpResponse:
        """Validate a signed URL for protected media access.

        The signed path is reconstructed as ``MEDIA_URL + path`` to match what
        ``generate_signed_url`` signed. Public paths need no signature.
        """
        if not is_protected_path(path):
            return HttpResponse(status=200)

        media_url = settings.MEDIA_URL.rstrip("/")
        params = parse_signed_url_params(f"{media_url}/{path}", request.GET.get("exp"), request.GET.get("sig"))
        if params is None:
            return HttpResponse(status=401)

        if not verify_signature(params.path, params.exp, params.sig):
            return HttpResponse(status=401)

        return HttpResponse(status=200)
