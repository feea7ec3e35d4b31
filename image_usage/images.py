"""Re-measure intrinsic image sizes inside the page."""

from __future__ import annotations

import logging

from .errors import ImageLoadError, RemoteEvaluationError
from .models import IntrinsicSize
from .snapshot import Evaluator

logger = logging.getLogger("image_usage")

# Loads the URL into a fresh, off-DOM image and reports its decoded size.
DETERMINE_NATURAL_SIZE_JS = """
(url) => new Promise((resolve, reject) => {
  const img = new Image();
  img.addEventListener('error', () => {
    reject(new Error('ImageLoadError: could not decode ' + url));
  });
  img.addEventListener('load', () => {
    resolve({width: img.naturalWidth, height: img.naturalHeight});
  });
  img.src = url;
})
"""


class SizeResolver:
    """Determine true intrinsic dimensions by decoding an image again.

    Browsers report the natural size of an ``img`` inside a ``picture``
    inconsistently, so only a fresh decode of the selected URL can be trusted.
    No timeout is applied; an image that never settles keeps its call pending.
    """

    def __init__(self, evaluate: Evaluator) -> None:
        self._evaluate = evaluate

    async def resolve(self, url: str) -> IntrinsicSize:
        logger.debug("Re-measuring intrinsic size of %s", url)
        try:
            payload = await self._evaluate(DETERMINE_NATURAL_SIZE_JS, url)
        except RemoteEvaluationError as exc:
            raise ImageLoadError(url, str(exc)) from exc
        size = IntrinsicSize.from_payload(payload)
        if size is None:
            raise ImageLoadError(url, f"unexpected size payload {payload!r}")
        return size
