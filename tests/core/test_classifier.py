"""
Unit tests for `core/classifier.py` – training command parsing and the shared BayesClassifier.

The classifier is exercised for real (scikit-learn is fast enough on a handful of
examples), with persistence redirected to a temporary directory so nothing is
written into the project tree. The concurrency test runs one writer thread
against several reader threads and checks that every classification comes from
a complete model: the labels in each ranking are exactly the labels of one
snapshot and the probabilities add up to one.
"""

import os
import tempfile
import threading
import unittest

from core.classifier import BayesClassifier, ClassifyCommand, TrainCommand, parse_command
from shared.errors import ClassifierError, TrainingCommandError


class TestParseCommand(unittest.TestCase):

    def test_train_command_is_split_into_label_and_text(self):
        self.assertEqual(
            parse_command("train billing refund my order"),
            TrainCommand(label="billing", text="refund my order"),
        )

    def test_train_prefix_is_case_insensitive_and_label_lowercased(self):
        self.assertEqual(
            parse_command("TRAIN Billing Refund my order"),
            TrainCommand(label="billing", text="Refund my order"),
        )

    def test_any_whitespace_separates_the_parts(self):
        self.assertEqual(
            parse_command("train\tweather  will it rain"),
            TrainCommand(label="weather", text="will it rain"),
        )

    def test_words_starting_with_train_are_ordinary_utterances(self):
        for text in ("training schedule for monday", "trains to boston", "trainer"):
            self.assertEqual(parse_command(text), ClassifyCommand(text=text))

    def test_short_text_is_an_ordinary_utterance(self):
        self.assertEqual(parse_command("tra"), ClassifyCommand(text="tra"))

    def test_train_without_label_or_text_is_rejected(self):
        for text in ("train", "train ", "train billing", "train billing   "):
            with self.assertRaises(TrainingCommandError):
                parse_command(text)

    def test_train_example_needs_a_word(self):
        with self.assertRaises(TrainingCommandError):
            parse_command("train billing ?!")


class TestBayesClassifier(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.model_path = os.path.join(self.tmp.name, "classifier.joblib")
        self.classifier = BayesClassifier(self.model_path)

    def tearDown(self):
        self.tmp.cleanup()

    def _train_basics(self, classifier):
        classifier.train("weather", "what is the weather today")
        classifier.train("weather", "will it rain tomorrow")
        classifier.train("billing", "refund my order")
        classifier.train("billing", "my invoice is wrong")

    def test_empty_model_raises(self):
        with self.assertRaises(ClassifierError):
            self.classifier.classify("hello")

    def test_single_label_wins_everything(self):
        self.classifier.train("greeting", "hello there")
        result = self.classifier.classify("something unrelated")
        self.assertEqual(result.command, "greeting")
        self.assertEqual(result.confidence, 1.0)
        self.assertEqual(result.sentence, "something unrelated")

    def test_classify_picks_the_matching_label(self):
        self._train_basics(self.classifier)
        result = self.classifier.classify("will it rain")
        self.assertEqual(result.command, "weather")
        self.assertGreater(result.confidence, 0.5)
        self.assertEqual([label for label, _ in result.scores][0], "weather")
        self.assertAlmostEqual(sum(prob for _, prob in result.scores), 1.0, places=6)

    def test_classify_returns_text_unchanged(self):
        self._train_basics(self.classifier)
        text = "  Refund MY order!!  "
        self.assertEqual(self.classifier.classify(text).sentence, text)

    def test_classify_is_deterministic(self):
        self._train_basics(self.classifier)
        self.assertEqual(self.classifier.classify("refund"), self.classifier.classify("refund"))

    def test_training_same_pair_twice_does_not_regress(self):
        self.classifier.train("billing", "refund my order")
        self.classifier.train("weather", "will it rain")
        first = self.classifier.classify("will it rain")
        self.classifier.train("weather", "will it rain")
        second = self.classifier.classify("will it rain")
        self.assertEqual(second.command, "weather")
        self.assertGreaterEqual(second.confidence, first.confidence)
        self.assertEqual(self.classifier.example_count, 3)

    def test_training_persists_and_reloads(self):
        self._train_basics(self.classifier)
        self.assertTrue(os.path.exists(self.model_path))

        reloaded = BayesClassifier(self.model_path)
        self.assertTrue(reloaded.load())
        self.assertEqual(reloaded.labels, ("billing", "weather"))
        self.assertEqual(reloaded.classify("will it rain").command, "weather")

    def test_missing_model_file_loads_empty(self):
        self.assertFalse(self.classifier.load())
        self.assertEqual(self.classifier.labels, ())

    def test_corrupt_model_file_resets_to_empty(self):
        self._train_basics(self.classifier)
        with open(self.model_path, "wb") as f:
            f.write(b"not a joblib blob")

        self.assertFalse(self.classifier.load())
        self.assertEqual(self.classifier.labels, ())
        with self.assertRaises(ClassifierError):
            self.classifier.classify("will it rain")

    def test_persist_failure_keeps_the_example(self):
        # A directory where the blob should go makes the final rename fail.
        os.makedirs(self.model_path)
        self.classifier.train("weather", "will it rain")
        self.assertEqual(self.classifier.labels, ("weather",))

    def test_concurrent_train_and_classify_never_see_partial_state(self):
        classifier = BayesClassifier()
        self._train_basics(classifier)
        allowed = {frozenset({"billing", "weather"}), frozenset({"billing", "weather", "travel"})}
        problems = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                result = classifier.classify("book a flight when it does not rain")
                labels = frozenset(label for label, _ in result.scores)
                total = sum(prob for _, prob in result.scores)
                if labels not in allowed or abs(total - 1.0) > 1e-6 or result.command not in labels:
                    problems.append(result)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for thread in readers:
            thread.start()
        try:
            for i in range(20):
                classifier.train("travel", f"book a flight to city {i}")
        finally:
            stop.set()
            for thread in readers:
                thread.join()

        self.assertEqual(problems, [])
        self.assertEqual(classifier.example_count, 24)


if __name__ == "__main__":
    unittest.main(verbosity=2)
