# moderation_engine/clients/classifier_client.py
import math
import threading
from typing import Callable, Dict, List, Optional

from moderation_engine.core.exceptions import ModelUnavailableException
from moderation_engine.core.logger import logger
from moderation_engine.models.content import PixelBuffer

NSFW_MODEL = "nsfw"
VIOLENCE_MODEL = "violence"

# A pretrained classifier: pixel buffer in, probability out.
Classifier = Callable[[PixelBuffer], float]


class ClassifierRegistry:
    """
    Holds the image classifiers available to the engine.

    Models are loaded by the caller (file I/O and deserialization live outside
    the engine) and registered here under a name. Asking for a model that was
    never registered raises ModelUnavailableException, which analyzers
    degrade to a missing signal.
    """

    def __init__(self, classifiers: Optional[Dict[str, Classifier]] = None):
        self._classifiers: Dict[str, Classifier] = dict(classifiers or {})
        self._lock = threading.Lock()

    def register(self, name: str, classifier: Classifier) -> None:
        with self._lock:
            self._classifiers[name] = classifier
        logger.info(f"{name} classifier registered")

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._classifiers.pop(name, None) is not None

    def is_loaded(self, name: str) -> bool:
        with self._lock:
            return name in self._classifiers

    @property
    def loaded_models(self) -> List[str]:
        with self._lock:
            return sorted(self._classifiers)

    def get(self, name: str) -> Classifier:
        with self._lock:
            classifier = self._classifiers.get(name)
        if classifier is None:
            raise ModelUnavailableException(
                f"{name} classifier is not loaded",
                model=name
            )
        return classifier

    def score(self, name: str, pixels: PixelBuffer) -> float:
        """
        Run a classifier and return its probability clamped to [0, 1].

        Raises:
            ModelUnavailableException: If the model is missing or returns a
                value that is not a probability
        """
        classifier = self.get(name)
        probability = float(classifier(pixels))
        if math.isnan(probability):
            raise ModelUnavailableException(
                f"{name} classifier returned NaN",
                model=name
            )
        return min(max(probability, 0.0), 1.0)
