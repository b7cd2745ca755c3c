from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Union
from talkbridge.contracts import EncodedUtterance, RecognitionResult

AUTO_LANGUAGE = "auto"


class Recognizer(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def submit(
        self,
        utterance: Union[EncodedUtterance, str],
        requested_language: str = AUTO_LANGUAGE,
    ) -> RecognitionResult: ...
