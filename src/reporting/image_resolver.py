"""
Photo evidence resolution.

Turns photo references (remote URL, data URI or inline bytes) into embeddable
image bytes with their native pixel size. Stateless: nothing is cached between
calls. Batches are fetched concurrently and fully settled before rendering.
"""

import hashlib
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

import requests

from src.reporting.errors import ImageUnresolvable
from utils.config import config
from utils.image_utils import decode_data_uri, is_data_uri, to_embeddable
from utils.logger import get_logger

logger = get_logger(__name__, component="IMAGES")

PhotoReference = Union[str, bytes]


@dataclass(frozen=True)
class ResolvedImage:
    """Decoded image ready for embedding."""
    data: bytes
    width: int
    height: int
    format: str = "PNG"

    @property
    def aspect_ratio(self) -> float:
        return self.height / self.width


def photo_key(reference: PhotoReference) -> str:
    """Stable key identifying a photo reference within one report."""
    if isinstance(reference, bytes):
        return "bytes:" + hashlib.sha1(reference).hexdigest()
    reference = reference.strip()
    if is_data_uri(reference):
        return "data:" + hashlib.sha1(reference.encode("utf-8")).hexdigest()
    return reference


def describe_reference(reference: PhotoReference) -> str:
    """Short, log-friendly description of a reference."""
    if isinstance(reference, bytes):
        return f"<inline {len(reference)} bytes>"
    if is_data_uri(reference):
        return f"<data uri {len(reference)} chars>"
    return reference


def _fetch(url: str, timeout: float, retries: int) -> bytes:
    """
    Download a remote photo with retry on timeouts, network errors and 5xx.

    Raises:
        ImageUnresolvable: When all attempts fail or the server answers 4xx
    """
    last_reason = "no attempt made"

    for attempt in range(retries):
        try:
            logger.debug(f"Fetching photo attempt {attempt + 1}/{retries}: {url}")
            response = requests.get(url, timeout=timeout)
        except requests.Timeout:
            last_reason = f"timed out after {timeout}s"
        except requests.RequestException as e:
            last_reason = f"network error: {e}"
        else:
            if response.ok:
                return response.content
            if response.status_code < 500:
                raise ImageUnresolvable(url, f"HTTP {response.status_code}")
            last_reason = f"HTTP {response.status_code}"

        if attempt + 1 < retries:
            wait_time = config.image_fetch_backoff * (2 ** attempt)
            logger.warning(f"Photo fetch failed ({last_reason}), retrying in {wait_time:.1f}s...")
            time.sleep(wait_time)

    raise ImageUnresolvable(url, last_reason)


def resolve_image(
    reference: PhotoReference,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
) -> ResolvedImage:
    """
    Resolve one photo reference.

    Args:
        reference: http(s) URL, ``data:image/...;base64,`` URI or raw bytes
        timeout: Per-request timeout in seconds (defaults to config)
        retries: Attempts for remote fetches (defaults to config)

    Returns:
        ResolvedImage with embeddable bytes and native dimensions

    Raises:
        ImageUnresolvable: On any fetch or decode failure
    """
    timeout = timeout or config.image_fetch_timeout
    retries = retries or config.image_fetch_retries
    label = describe_reference(reference)

    if isinstance(reference, bytes):
        raw = reference
    elif is_data_uri(reference):
        try:
            raw = decode_data_uri(reference)
        except ValueError as e:
            raise ImageUnresolvable(label, str(e))
    elif reference.strip().lower().startswith(("http://", "https://")):
        raw = _fetch(reference.strip(), timeout, retries)
    else:
        raise ImageUnresolvable(label, "unsupported photo reference")

    try:
        data, width, height, fmt = to_embeddable(raw)
    except ValueError as e:
        raise ImageUnresolvable(label, str(e))

    logger.debug(f"Resolved {label}: {width}x{height} {fmt}")
    return ResolvedImage(data=data, width=width, height=height, format=fmt)


def resolve_images(
    references: Iterable[PhotoReference],
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
) -> Dict[str, Optional[ResolvedImage]]:
    """
    Resolve a batch of photo references concurrently.

    All fetches run at once (bounded by MAX_CONCURRENT_FETCHES when set) and the
    call returns only after every one of them has settled. Failures are logged
    and mapped to None so a single bad photo never aborts a report.

    Returns:
        Mapping of ``photo_key(reference)`` to the resolved image or None,
        in first-seen order
    """
    unique: Dict[str, PhotoReference] = {}
    for reference in references:
        unique.setdefault(photo_key(reference), reference)

    if not unique:
        return {}

    workers = min(config.max_concurrent_fetches or len(unique), len(unique))
    logger.info(f"Resolving {len(unique)} photo(s) with {workers} worker(s)")

    results: Dict[str, Optional[ResolvedImage]] = {}
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="photo") as executor:
        futures = {
            executor.submit(resolve_image, reference, timeout, retries): key
            for key, reference in unique.items()
        }
        for future in as_completed(futures):
            key = futures[future]
            try:
                results[key] = future.result()
            except ImageUnresolvable as e:
                logger.warning(f"Omitting photo evidence: {e}")
                results[key] = None
            except Exception as e:
                logger.warning(f"Omitting photo evidence {describe_reference(unique[key])}: {e}")
                results[key] = None

    omitted = sum(1 for image in results.values() if image is None)
    if omitted:
        logger.warning(f"{omitted} of {len(unique)} photo(s) could not be resolved")

    return {key: results[key] for key in unique}
