from typing import Final, Mapping, Optional
from urllib.parse import quote

from twilio.request_validator import RequestValidator as TwilioSignatureValidator

XML_DECL: Final[str] = '<?xml version="1.0" encoding="UTF-8"?>'


def escape_for_xml(text: str) -> str:
    """
    Escape &, <, >, ", ' for safe XML content.
    """
    if text is None:
        return ""
    # & first, or the entities inserted below get escaped again
    escaped = text.replace("&", "&amp;")
    escaped = escaped.replace("<", "&lt;")
    escaped = escaped.replace(">", "&gt;")
    escaped = escaped.replace('"', "&quot;")
    escaped = escaped.replace("'", "&apos;")
    return escaped


def to_twiml_message(body: str, media_url: Optional[str] = None) -> str:
    """
    Wrap a reply in a TwiML envelope, attaching an image when given.
    """
    if not media_url:
        return f"{XML_DECL}<Response><Message>{escape_for_xml(body)}</Message></Response>"
    return (
        f"{XML_DECL}<Response><Message>"
        f"<Body>{escape_for_xml(body)}</Body>"
        f"<Media>{escape_for_xml(media_url)}</Media>"
        f"</Message></Response>"
    )


def build_media_url(base_url: str, image_path: str) -> Optional[str]:
    """
    Public URL under which the service serves ``image_path``; None without a base URL.
    """
    if not base_url or not image_path:
        return None
    return f"{base_url.rstrip('/')}/images/{quote(image_path.lstrip('/'))}"


def is_valid_twilio_request(auth_token: str, url: str, params: Mapping[str, str],
                            signature: Optional[str]) -> bool:
    """
    Check X-Twilio-Signature. Without an auth token configured, every request passes.
    """
    if not auth_token:
        return True
    if not signature:
        return False
    return TwilioSignatureValidator(auth_token).validate(url, dict(params), signature)
