"""PromptChain: run directed graphs of prompt nodes against text-generation providers."""

__version__ = "0.1.0"
