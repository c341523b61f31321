from .settings import DistillCfg, EmbeddingCfg, LLMCfg, RetrievalCfg, Settings, StoreCfg

__all__ = ["Settings", "RetrievalCfg", "DistillCfg", "StoreCfg", "EmbeddingCfg", "LLMCfg"]
