"""Reactive store holding every image of the report run being viewed."""
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set, Tuple
from pydantic import BaseModel, ConfigDict
from dibreport.core.assembler import merge
from dibreport.core.models import ImageRecord

logger = logging.getLogger(__name__)


class RegistrySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    image_names: Tuple[str, ...] = ()
    images: Dict[str, ImageRecord] = {}

    def all_images(self) -> List[ImageRecord]:
        return [self.images[name] for name in self.image_names if name in self.images]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imageNames": list(self.image_names),
            "images": {name: self.images[name].to_dict() for name in self.image_names if name in self.images},
        }


Subscriber = Callable[[RegistrySnapshot], None]


class ReportRegistry:
    """Ordered image names plus the records loaded so far.

    Every mutation publishes a fresh snapshot to all subscribers. A mutation
    requested by a subscriber while a snapshot is being delivered is queued
    and applied once delivery finishes, so subscribers always see the
    mutations one at a time.

    Selecting a run discards every record loaded for the previous one, even
    for image names both runs share. Upserts stamped with another run are
    ignored, as are upserts for a name dropped by a run switch: they are late
    results from the previous run. Upserts for a name the registry has never
    seen append it to the name list.
    """

    def __init__(self):
        self._run: Optional[str] = None
        self._image_names: List[str] = []
        self._images: Dict[str, ImageRecord] = {}
        self._retired: Set[str] = set()
        self._subscribers: List[Subscriber] = []
        self._pending: Deque[Callable[[], bool]] = deque()
        self._publishing = False

    @property
    def run(self) -> Optional[str]:
        return self._run

    @property
    def image_names(self) -> List[str]:
        return list(self._image_names)

    def set_image_names(self, names: Iterable[str], run: Optional[str] = None):
        """Select a new run: track `names` and drop every loaded record.

        Later upserts stamped with a different run name are ignored.
        """
        names = list(dict.fromkeys(names))

        def apply() -> bool:
            new_names = set(names)
            dropped = (set(self._image_names) | set(self._images)) - new_names
            self._retired = (self._retired | dropped) - new_names
            self._images = {}
            self._run = run
            self._image_names = names
            logger.debug(f"Registry now tracks {len(names)} images, {len(dropped)} dropped")
            return True

        self._mutate(apply)

    def upsert_image(self, record: ImageRecord, run: Optional[str] = None):
        def apply() -> bool:
            name = record.name
            if run is not None and run != self._run:
                logger.debug(f"Ignoring late result for {name} from run {run}, current run is {self._run}")
                return False
            if name in self._retired:
                logger.debug(f"Ignoring late result for {name}, not part of the current run")
                return False
            if name not in self._image_names:
                logger.info(f"Image {name} was not in the manifest, adding it")
                self._image_names.append(name)
            self._images[name] = merge(self._images.get(name), record)
            return True

        self._mutate(apply)

    def get_image(self, name: str) -> Optional[ImageRecord]:
        return self._images.get(name)

    def all_images(self) -> List[ImageRecord]:
        return [self._images[name] for name in self._image_names if name in self._images]

    def snapshot(self) -> RegistrySnapshot:
        images = {name: self._images[name] for name in self._image_names if name in self._images}
        return RegistrySnapshot(image_names=tuple(self._image_names), images=images)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register `callback`, deliver the current snapshot and return an unsubscribe function."""
        self._subscribers.append(callback)
        self._deliver(callback, self.snapshot())

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _mutate(self, apply: Callable[[], bool]):
        self._pending.append(apply)
        if self._publishing:
            return
        self._publishing = True
        try:
            while self._pending:
                changed = self._pending.popleft()()
                if changed:
                    snapshot = self.snapshot()
                    for callback in list(self._subscribers):
                        self._deliver(callback, snapshot)
        finally:
            self._publishing = False

    def _deliver(self, callback: Subscriber, snapshot: RegistrySnapshot):
        try:
            callback(snapshot)
        except Exception as e:
            logger.error(f"Registry subscriber {callback!r} failed: {e}")
