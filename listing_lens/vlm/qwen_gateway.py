"""
Local Qwen2.5-VL gateway (no network):
- bf16 precision
- 32k tokenizer context
- Accelerate device_map="auto" with explicit max_memory (GPU cap + CPU offload)
- Attention implementation set via model config (sdpa / flash_attention_2 / eager)
- Weights load on first invoke; OOM falls back to CPU, any other load failure is a ProviderError
"""

from __future__ import annotations
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence
import logging
import os
import threading

from PIL import Image, ImageOps, UnidentifiedImageError

# allocator hint before torch import
os.environ.setdefault("PYTORCH_CUDA_ALLOC_CONF", "expandable_segments:True")

from ..core.errors import InvalidImageData, ProviderError
from ..core.settings import Settings
from .gateway import decode_images

logger = logging.getLogger(__name__)

@dataclass
class QwenConfig:
    model_id: str
    device: str          # "auto" | "cpu" | "cuda"
    max_new_tokens: int
    temperature: float
    top_p: float
    # memory / offload
    offload_folder: str
    gpu_max_gb: float
    cpu_max_gb: float
    attn_impl: str       # "sdpa", "flash_attention_2", "eager"
    context_tokens: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "QwenConfig":
        return cls(
            model_id=settings.qwen_model_id,
            device=settings.qwen_device,
            max_new_tokens=settings.qwen_max_new_tokens,
            temperature=settings.qwen_temperature,
            top_p=settings.qwen_top_p,
            offload_folder=str(settings.qwen_offload_folder),
            gpu_max_gb=float(settings.qwen_gpu_max_gb),
            cpu_max_gb=float(settings.qwen_cpu_max_gb),
            attn_impl=settings.qwen_attn_impl,
            context_tokens=int(settings.qwen_context_tokens),
        )

def _normalize_model_id(mid: str) -> str:
    mid = (mid or "").strip()
    if not mid:
        return "Qwen/Qwen2.5-VL-3B-Instruct"
    if "/" not in mid:
        return "Qwen/" + mid
    return mid

def _max_memory_map(torch, gpu_gb: float, cpu_gb: float) -> dict:
    mm = {"cpu": f"{int(cpu_gb)}GiB"}
    if torch.cuda.is_available() and torch.cuda.device_count() > 0:
        mm[0] = f"{int(gpu_gb)}GiB"   # integer GPU key
    return mm

def to_pil_images(images: Sequence[str]) -> List[Image.Image]:
    out = []
    for i, raw in enumerate(decode_images(images)):
        try:
            img = Image.open(BytesIO(raw))
            out.append(ImageOps.exif_transpose(img).convert("RGB"))
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidImageData(f"images[{i}] could not be decoded: {e}") from e
    return out

class QwenGateway:
    name = "qwen"

    def __init__(self, cfg: QwenConfig):
        self.cfg = cfg
        self.model = _normalize_model_id(cfg.model_id)
        self.processor = None
        self._model = None
        self._device = None
        self._load_error: Optional[str] = None
        self._lock = threading.Lock()

    def _load(self) -> None:
        import torch
        from transformers import AutoProcessor, AutoModelForImageTextToText, AutoConfig

        cfg = self.cfg
        dtype = torch.bfloat16

        self.processor = AutoProcessor.from_pretrained(
            self.model, trust_remote_code=True, use_fast=True
        )
        tok = getattr(self.processor, "tokenizer", None)
        if tok is not None:
            tok.model_max_length = int(cfg.context_tokens)

        config = AutoConfig.from_pretrained(self.model, trust_remote_code=True)
        # not all models expose this; harmless when absent
        setattr(config, "attn_implementation", cfg.attn_impl)

        offload_dir = str(cfg.offload_folder)
        os.makedirs(offload_dir, exist_ok=True)

        def load_on_cpu():
            return AutoModelForImageTextToText.from_pretrained(
                self.model,
                config=config,
                torch_dtype=dtype,
                device_map={"": "cpu"},
                offload_folder=offload_dir,
                trust_remote_code=True,
            ).eval()

        if cfg.device == "cpu" or not torch.cuda.is_available():
            self._model = load_on_cpu()
            self._device = torch.device("cpu")
            return

        try:
            self._model = AutoModelForImageTextToText.from_pretrained(
                self.model,
                config=config,
                torch_dtype=dtype,
                device_map="auto",
                max_memory=_max_memory_map(torch, cfg.gpu_max_gb, cfg.cpu_max_gb),
                offload_folder=offload_dir,
                trust_remote_code=True,
            ).eval()
            self._device = next(self._model.parameters()).device
        except RuntimeError:
            logger.warning("Qwen GPU load failed, falling back to CPU", exc_info=True)
            self._model = load_on_cpu()
            self._device = torch.device("cpu")

    def _ensure_loaded(self) -> None:
        with self._lock:
            if self._model is not None:
                return
            try:
                logger.info("Loading %s (device=%s)", self.model, self.cfg.device)
                self._load()
                self._load_error = None
            except Exception as e:
                self._load_error = str(e)
                logger.exception("Qwen load failed")
                raise ProviderError(f"Local model unavailable: {e}") from e

    def _build_messages(self, n_images: int, system_prompt: str, user_prompt: str) -> list:
        return [
            {"role": "system", "content": [{"type": "text", "text": system_prompt}]},
            {
                "role": "user",
                "content": [{"type": "image"} for _ in range(n_images)] + [{"type": "text", "text": user_prompt}],
            },
        ]

    def _generate(self, imgs: List[Image.Image], system_prompt: str, user_prompt: str) -> str:
        chat_text = self.processor.apply_chat_template(
            self._build_messages(len(imgs), system_prompt, user_prompt), add_generation_prompt=True
        )
        inputs = self.processor(images=imgs, text=chat_text, return_tensors="pt", padding=True)

        # Move inputs to the model device
        dev = self._device
        for k, v in inputs.items():
            if hasattr(v, "to"):
                inputs[k] = v.to(dev)

        gen = self._model.generate(
            **inputs,
            max_new_tokens=self.cfg.max_new_tokens,
            temperature=self.cfg.temperature,
            top_p=self.cfg.top_p,
        )

        # Decode only continuation
        in_ids = inputs.get("input_ids")
        gen_ids = gen[:, in_ids.shape[1]:] if in_ids is not None else gen
        out = self.processor.batch_decode(gen_ids, skip_special_tokens=True)
        return (out[0] if out else "").strip()

    def invoke(self, images: Sequence[str], system_prompt: str, user_prompt: str,
               mime_type: str = "image/jpeg") -> str:
        imgs = to_pil_images(images)
        self._ensure_loaded()
        try:
            return self._generate(imgs, system_prompt, user_prompt)
        except RuntimeError as e:
            # CUDA OOM surfaces here as RuntimeError
            raise ProviderError(f"Local generation failed: {e}") from e

    def status(self) -> Dict[str, Any]:
        return {
            "provider": self.name,
            "model": self.model,
            "device": self.cfg.device,
            "loaded": self._model is not None,
            "load_warning": self._load_error,
        }
