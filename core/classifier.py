"""
core/classifier.py

Intent classification and online training.

This module owns the process-wide text classifier that maps an utterance to
intent labels. The model is a multinomial naive Bayes over word counts that is
refit from every labeled example it has seen, so a single `train` command is
enough to teach it a new label. The examples are persisted with joblib and the
model is rebuilt from them at boot.

Concurrency: the fitted state lives in one immutable `_Snapshot`. `classify`
reads the current snapshot reference once and works only on that object.
`train` serializes writers on a lock, builds a complete new snapshot and then
swaps the reference, so a reader sees either the old model or the new one,
never a half-applied update.
"""

import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import joblib
from sklearn.feature_extraction.text import CountVectorizer
from sklearn.naive_bayes import MultinomialNB

from shared.errors import ClassifierError, TrainingCommandError
from shared.models import StructuredInput
from monitoring.metrics import TRAINING_COUNT

logger = logging.getLogger(__name__)

TRAIN_PREFIX = "train"

# "train" as a whole word, then whitespace. "trainer ..." is a normal utterance.
_TRAIN_RE = re.compile(r"^\s*" + re.escape(TRAIN_PREFIX) + r"(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)
_WORD_RE = re.compile(r"\w", re.UNICODE)

BLOB_VERSION = 1


@dataclass(frozen=True)
class TrainCommand:
    label: str
    text: str


@dataclass(frozen=True)
class ClassifyCommand:
    text: str


Command = Union[TrainCommand, ClassifyCommand]


def parse_command(text: str) -> Command:
    """
    Decide whether an utterance teaches the classifier or asks it something.

    `train <label> <example text>` (prefix case-insensitive, any whitespace as
    separator) yields a TrainCommand; everything else a ClassifyCommand with
    the text untouched.

    Raises:
        TrainingCommandError: the prefix matched but the label or the example
            text is missing, or the example has no word characters.
    """
    match = _TRAIN_RE.match(text)
    if match is None:
        return ClassifyCommand(text=text)

    remainder = (match.group(1) or "").strip()
    parts = remainder.split(None, 1)
    if len(parts) < 2:
        raise TrainingCommandError("usage: train <label> <example text>")

    label, example = parts[0].lower(), parts[1].strip()
    if not _WORD_RE.search(example):
        raise TrainingCommandError("training example must contain at least one word")
    return TrainCommand(label=label, text=example)


@dataclass(frozen=True)
class _Snapshot:
    examples: Tuple[Tuple[str, str], ...] = ()
    labels: Tuple[str, ...] = ()
    vectorizer: Optional[CountVectorizer] = None
    model: Optional[MultinomialNB] = None


def _fit(examples: Tuple[Tuple[str, str], ...]) -> _Snapshot:
    """Build a fully fitted snapshot from (label, text) pairs."""
    labels = tuple(sorted({label for label, _ in examples}))
    if len(labels) < 2:
        # MultinomialNB needs two classes; a single label wins every utterance.
        return _Snapshot(examples=examples, labels=labels)

    vectorizer = CountVectorizer(lowercase=True, token_pattern=r"(?u)\b\w+\b")
    matrix = vectorizer.fit_transform([text for _, text in examples])
    model = MultinomialNB()
    model.fit(matrix, [label for label, _ in examples])
    return _Snapshot(examples=examples, labels=labels, vectorizer=vectorizer, model=model)


class BayesClassifier:
    """
    Shared, mutable intent classifier.

    Responsibilities:
    - Load the persisted examples at boot and degrade to an empty model on failure
    - Classify utterances into a ranked list of labels with probabilities
    - Accept labeled examples online and persist them after each update
    """

    def __init__(self, model_path: Optional[str] = None):
        self.model_path = model_path
        self._snapshot = _Snapshot()
        self._write_lock = threading.Lock()

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._snapshot.labels

    @property
    def example_count(self) -> int:
        return len(self._snapshot.examples)

    def load(self) -> bool:
        """
        Rebuild the model from the persisted blob.

        Returns True when a model was loaded. A missing or unreadable blob is
        logged and leaves the classifier empty; it never raises, so boot can
        continue with every classification degrading to low confidence.
        """
        if not self.model_path:
            logger.warning("[BayesClassifier] No model path configured, starting with an empty model")
            return False
        if not os.path.exists(self.model_path):
            logger.warning(f"[BayesClassifier] Model file {self.model_path} does not exist, starting with an empty model")
            return False
        try:
            blob = joblib.load(self.model_path)
            examples = tuple((str(label), str(text)) for label, text in blob["examples"])
            snapshot = _fit(examples)
        except Exception as e:
            logger.warning(f"[BayesClassifier] Could not load model from {self.model_path}: {e}. Resetting to an empty model")
            with self._write_lock:
                self._snapshot = _Snapshot()
            return False

        with self._write_lock:
            self._snapshot = snapshot
        logger.info(f"[BayesClassifier] Loaded {len(examples)} examples across {len(snapshot.labels)} labels")
        return True

    def save(self) -> None:
        """Persist the current examples. Written to a temp file then renamed into place."""
        if not self.model_path:
            return
        snapshot = self._snapshot
        target = Path(self.model_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix=".tmp")
        os.close(fd)
        try:
            joblib.dump({"version": BLOB_VERSION, "examples": list(snapshot.examples)}, tmp_path)
            os.replace(tmp_path, target)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def classify(self, text: str) -> StructuredInput:
        """
        Classify an utterance against the current model.

        Deterministic for a given model state: ties are broken alphabetically.

        Args:
            text (str): The raw utterance. Returned unchanged in `sentence`.

        Returns:
            StructuredInput: best label, its probability and the full ranking.

        Raises:
            ClassifierError: the model has never been trained.
        """
        snapshot = self._snapshot
        if not snapshot.labels:
            raise ClassifierError("classifier has no training data")

        if snapshot.model is None:
            label = snapshot.labels[0]
            return StructuredInput(command=label, confidence=1.0, sentence=text, scores=((label, 1.0),))

        try:
            probabilities = snapshot.model.predict_proba(snapshot.vectorizer.transform([text]))[0]
        except Exception as e:
            raise ClassifierError(f"classification failed: {e}") from e

        scores = sorted(
            ((str(label), float(prob)) for label, prob in zip(snapshot.model.classes_, probabilities)),
            key=lambda item: (-item[1], item[0])
        )
        best_label, best_prob = scores[0]
        logger.debug(f"[BayesClassifier] Classified '{text[:50]}' as {best_label} ({best_prob:.3f})")
        return StructuredInput(command=best_label, confidence=best_prob, sentence=text, scores=tuple(scores))

    def train(self, label: str, text: str) -> None:
        """
        Add one labeled example and refit.

        Training the same pair twice is allowed; the duplicate simply weighs
        more. The new model becomes visible to readers in a single reference
        swap. A failure to persist is logged, the in-memory model keeps the
        example.
        """
        with self._write_lock:
            examples = self._snapshot.examples + ((label, text),)
            self._snapshot = _fit(examples)
            TRAINING_COUNT.inc()
            logger.info(f"[BayesClassifier] Trained '{label}' ({len(examples)} examples)")
            try:
                self.save()
            except Exception as e:
                logger.error(f"[BayesClassifier] Could not persist model to {self.model_path}: {e}", exc_info=True)
