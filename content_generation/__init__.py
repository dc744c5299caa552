"""
Content Generation Module

Architecture:
- prompts.py       : prompt builders and static fallback payloads per stage
- providers.py     : Anthropic / OpenAI calls, generation fallback, chat provider switch
- stages.py        : questions, research and content stages
- transcripts.py   : YouTube transcript / web scrape ingestion via Supadata
- workflow.py      : step sequencer with transient state, entry guards and request tokens
- documents.py     : schema and timestamp normalization at the persistence boundary
- database.py      : shared MongoDB client and collection names
- sessions.py      : content session persistence + repair utility
- conversations.py : chat conversation persistence
- errors.py        : exceptions shared with the routers
"""
