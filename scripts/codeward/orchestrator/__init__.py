"""
Orchestrator package for codeward.

Modules:
    analysis_orchestrator: Unit-by-unit dispatch of content to the analysis backend
    llm_manager: LLM provider management and structured analysis calls
    prompt_manager: Prompt templates and risk descriptions
"""
