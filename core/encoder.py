"""
Sensory Encoder
===============

Turns translator output into the fixed-size input vector consumed by the
reservoir. The encoding is pure and deterministic: the same translator
output always produces a bit-identical float32 vector.

Layout, applied in order over a zero vector:
1. text_embedding events: hashed token weights or scaled seed values,
   then the whole vector is multiplied by the event strength
2. sensory_stim events: a decaying window starting at the receptor hash
3. neurogenesis requests: +1.0 at the label hash
4. normalization so the maximum component is 1.0
"""

import numpy as np
from typing import Any, Union

from config.constants import (
    VECTOR_SIZE,
    TOKEN_HASH_MULTIPLIER,
    TOKEN_HASH_MASK,
    TOKEN_HASH_SHIFT,
    TOKEN_BASE_WEIGHT,
    TOKEN_MOD,
    TOKEN_DIVISOR,
    SEED_EMBEDDING_SCALE,
    SENSORY_WINDOW,
    NEUROGENESIS_WEIGHT,
)
from core.types import TranslatorOutput

_FLOAT32_MAX = float(np.finfo(np.float32).max)


def token_index(token: int, size: int = VECTOR_SIZE) -> int:
    """
    Vector slot for a token id (multiplicative hash on a 64-bit word).

    Unlike stable_hash, this does not reproduce the mobile client, which
    truncates to 32 bits and drops ids whose truncated hash is negative
    (the first such id is 53020).
    """
    hashed = (token * TOKEN_HASH_MULTIPLIER) & TOKEN_HASH_MASK
    return (hashed >> TOKEN_HASH_SHIFT) % size


def token_weight(token: int) -> float:
    return TOKEN_BASE_WEIGHT + (token % TOKEN_MOD) / TOKEN_DIVISOR


def stable_hash(text: str) -> int:
    """
    Non-negative 32-bit string hash, stable across processes.

    Same value as abs(String.hashCode()) on the JVM, computed over UTF-16
    code units, so indices match those produced by the mobile client.
    Python's built-in hash() is salted per process and cannot be used.
    """
    h = 0
    encoded = text.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (31 * h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class SensoryEncoder:
    """
    Deterministic translator-output -> input-vector encoder.

    Example:
        encoder = SensoryEncoder()
        vector = encoder.encode({"neural_inputs": [{"kind": "text_embedding", "tokens": [5]}]})
        assert vector.max() == 1.0
    """

    def __init__(self, size: int = VECTOR_SIZE):
        self.size = size

    def encode(self, translator_output: Union[TranslatorOutput, Any]) -> np.ndarray:
        """
        Encode translator output into a normalized float32 vector.

        Args:
            translator_output: TranslatorOutput, or a raw mapping which is
                decoded leniently (anything else encodes to all zeros)

        Returns:
            Vector of length self.size; all zeros or with max exactly 1.0
        """
        if not isinstance(translator_output, TranslatorOutput):
            translator_output = TranslatorOutput.from_dict(translator_output)

        # Accumulate in float64; cast to float32 only after normalizing
        vector = np.zeros(self.size, dtype=np.float64)

        with np.errstate(over="ignore", invalid="ignore"):
            # Strength scales everything accumulated so far, not just this
            # event's contribution, so strengths compound in list order.
            for event in translator_output.text_embeddings:
                if event.tokens is not None:
                    for token in event.tokens:
                        vector[token_index(token, self.size)] += token_weight(token)
                elif event.seed_embedding is not None:
                    for k, value in enumerate(event.seed_embedding):
                        vector[k % self.size] += value * SEED_EMBEDDING_SCALE
                vector *= event.strength

            for event in translator_output.sensory_stims:
                base_idx = stable_hash(event.receptor) % self.size
                for w in range(SENSORY_WINDOW):
                    idx = (base_idx + w) % self.size
                    vector[idx] += event.intensity * (1.0 - w / SENSORY_WINDOW)

            for request in translator_output.neurogenesis:
                vector[stable_hash(request.label) % self.size] += NEUROGENESIS_WEIGHT

        return self._normalize(vector)

    @staticmethod
    def _normalize(vector: np.ndarray) -> np.ndarray:
        # inf * 0 gives NaN, which contributes nothing; infinities saturate
        vector = np.nan_to_num(vector, nan=0.0, posinf=_FLOAT32_MAX, neginf=-_FLOAT32_MAX)
        np.clip(vector, -_FLOAT32_MAX, _FLOAT32_MAX, out=vector)
        peak = vector.max() if vector.size else 0.0
        if peak > 0:
            with np.errstate(over="ignore"):
                vector /= peak
            np.clip(vector, -_FLOAT32_MAX, 1.0, out=vector)
        return vector.astype(np.float32)


_default_encoder = SensoryEncoder()


def encode(translator_output: Union[TranslatorOutput, Any]) -> np.ndarray:
    """Module-level shortcut for SensoryEncoder().encode()."""
    return _default_encoder.encode(translator_output)
