"""Post-processing of finished transcripts."""

from voicequeue.postprocess.text_improvement import OpenAITextImprover, TextImprover

__all__ = ["OpenAITextImprover", "TextImprover"]
