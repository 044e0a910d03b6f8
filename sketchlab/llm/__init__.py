"""
LLM module for the Azure OpenAI generation, chat and media endpoints.
"""

from sketchlab.llm.azure_openai_client import AzureOpenAIClient, AzureOpenAIVideoJobs, load_prompt

__all__ = [
    "AzureOpenAIClient",
    "AzureOpenAIVideoJobs",
    "load_prompt",
]
