from typing import Dict, Iterable, Optional, Any
import os

from app.cache.image_cache import ByteBudgetedCache
from app.errors import ImagePathError
from app.obs.logger import log_event
from app.quiz.questions import Question


class ImageService:
    """Loads question images from disk, keeping hot ones in memory."""

    def __init__(self, base_path: str, max_cache_mb: int = 50):
        self.base_path = os.path.abspath(base_path)
        self.cache: ByteBudgetedCache[str] = ByteBudgetedCache(max_cache_mb * 1024 * 1024)
        self.counters = {"cache_hits": 0, "cache_misses": 0, "load_errors": 0}

    def full_path(self, image_path: str) -> str:
        full = os.path.abspath(os.path.join(self.base_path, image_path))
        if os.path.commonpath([full, self.base_path]) != self.base_path:
            raise ImagePathError(f"image path escapes base directory: {image_path}")
        return full

    def get_image(self, image_path: str) -> Optional[bytes]:
        cached = self.cache.get(image_path)
        if cached is not None:
            self.counters["cache_hits"] += 1
            return cached

        full = self.full_path(image_path)
        if not os.path.isfile(full):
            return None
        try:
            with open(full, "rb") as f:
                data = f.read()
        except OSError as e:
            self.counters["load_errors"] += 1
            log_event("image_load_error", level="ERROR", path=image_path, error=str(e))
            return None

        self.counters["cache_misses"] += 1
        if not self.cache.set(image_path, data):
            log_event("image_not_cached", path=image_path, size_bytes=len(data))
        return data

    def image_exists(self, image_path: str) -> bool:
        if self.cache.has(image_path):
            return True
        try:
            return os.path.isfile(self.full_path(image_path))
        except ImagePathError:
            return False

    def preload_ticket_images(self, questions: Iterable[Question]) -> int:
        loaded = 0
        for q in questions:
            if q.image_url and self.image_exists(q.image_url):
                if self.get_image(q.image_url) is not None:
                    loaded += 1
        return loaded

    def clear_cache(self) -> None:
        self.cache.clear()
        log_event("image_cache_cleared")

    def stats(self) -> Dict[str, Any]:
        hits = self.counters["cache_hits"]
        lookups = hits + self.counters["cache_misses"]
        hit_rate = hits / lookups * 100 if lookups else 0
        return {
            **self.counters,
            "hit_rate": f"{hit_rate:.1f}%",
            "cache": self.cache.stats(),
        }
