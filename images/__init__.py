"""Image URI resolution for asset metadata.

Asset ``uris`` mix images with social links and metadata documents. This
module picks the best image candidate and rewrites content-addressed
(IPFS/Arweave) URIs to HTTP gateway URLs. Everything here is pure: no I/O and
no state beyond the configured default gateway.
"""

import re
from typing import Iterable, Optional

from config import settings_conf
from models import UriHint

# Keys checked first, in priority order
IMAGE_KEYS = ('image', 'img', 'picture', 'thumbnail', 'media', 'photo')

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.webp', '.svg', '.avif')

NON_IMAGE_PATTERNS = (
    't.me', 'telegram', 'twitter', 'x.com', 'discord',
    'medium.com', 'github', 'youtube', 'website',
)

ARWEAVE_GATEWAY = 'https://arweave.net'

# Gateways that rate-limit or time out; their paths are served by the preferred one
UNRELIABLE_GATEWAYS = (
    re.compile(r'^https?://ipfs\.io/ipfs/', re.IGNORECASE),
    re.compile(r'^https?://klever-mint\.mypinata\.cloud/ipfs/', re.IGNORECASE),
)


def is_image_url(value: Optional[str]) -> bool:
    """Check whether a URI value plausibly points at an image."""
    if not value or not isinstance(value, str):
        return False
    lower = value.lower()

    if any(pattern in lower for pattern in NON_IMAGE_PATTERNS):
        return False

    if any(ext in lower for ext in IMAGE_EXTENSIONS):
        return True

    if 'ipfs' in lower or 'arweave' in lower:
        return 'metadata' not in lower

    return False


def normalize_image_url(url: Optional[str], gateway: Optional[str] = None) -> Optional[str]:
    """Rewrite IPFS/Arweave URIs and unreliable gateways to HTTP gateway URLs."""
    if not url:
        return None
    url = url.strip()
    host = (gateway or settings_conf['ipfs_gateway']).strip().strip('/')
    preferred = f"https://{host}/ipfs/"

    if url.startswith('ipfs://'):
        cid = url[len('ipfs://'):]
        if cid.startswith('ipfs/'):
            cid = cid[len('ipfs/'):]
        return preferred + cid

    if url.startswith('ar://'):
        return f"{ARWEAVE_GATEWAY}/{url[len('ar://'):]}"

    for pattern in UNRELIABLE_GATEWAYS:
        if pattern.match(url):
            return pattern.sub(preferred, url, count=1)

    return url


def resolve_image_url(
    hints: Optional[Iterable[UriHint]],
    logo: Optional[str] = None,
    gateway: Optional[str] = None
) -> Optional[str]:
    """Select the best image URL for an asset.

    A curated ``logo`` wins. Otherwise the first image-like value under one of
    IMAGE_KEYS (in priority order), then the first image-like value under any
    key. Returns None when nothing qualifies; the caller supplies a placeholder.

    Args:
        hints: The asset's ``uris`` as UriHint entries, in upstream order
        logo: The asset's ``logo`` field, if any
        gateway: IPFS gateway host; defaults to the ``ipfs_gateway`` setting

    Returns:
        An HTTP(S) image URL or None
    """
    if logo and logo.strip():
        return normalize_image_url(logo, gateway)

    hints = list(hints or [])
    if not hints:
        return None

    for key in IMAGE_KEYS:
        for hint in hints:
            if (hint.key or '').strip().lower() == key and is_image_url(hint.value):
                return normalize_image_url(hint.value, gateway)

    for hint in hints:
        if is_image_url(hint.value):
            return normalize_image_url(hint.value, gateway)

    return None
