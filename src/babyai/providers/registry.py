from __future__ import annotations
from typing import Callable, Dict, Type
from importlib import import_module

from babyai.core.types import ProviderVariant

_ADAPTER_MODULES = (
    "babyai.providers.ollama",
    "babyai.providers.openai_adapter",
    "babyai.providers.anthropic",
    "babyai.providers.gemini",
)


class ProviderRegistry:
    """
    Dispatch table from ProviderVariant to adapter class.
    Keys are the closed variant set only; verify_complete() fails loudly
    when a variant has no adapter, so there is never a fallthrough branch.
    """

    _classes: Dict[ProviderVariant, Type] = {}
    _loaded: bool = False

    @classmethod
    def register(cls, variant: ProviderVariant) -> Callable[[Type], Type]:
        if not isinstance(variant, ProviderVariant):
            raise TypeError(f"register() expects a ProviderVariant, got {variant!r}")

        def deco(klass: Type) -> Type:
            existing = cls._classes.get(variant)
            if existing is not None and existing is not klass:
                raise ValueError(
                    f"Variant '{variant.value}' already bound to {existing.__name__}"
                )
            cls._classes[variant] = klass
            return klass
        return deco

    @classmethod
    def get(cls, variant: ProviderVariant) -> Type:
        cls.ensure_imports()
        return cls._classes[variant]

    @classmethod
    def verify_complete(cls) -> None:
        missing = [v.value for v in ProviderVariant if v not in cls._classes]
        if missing:
            raise RuntimeError(f"No adapter registered for provider variant(s): {missing}")

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run, then check
        every variant is covered. Cheap after the first call.
        """
        if cls._loaded:
            return
        for name in _ADAPTER_MODULES:
            import_module(name)
        cls.verify_complete()
        cls._loaded = True
