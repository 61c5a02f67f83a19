"""
AI Module - schedule extraction with Gemini.

Module Structure:
================
- providers/: provider clients behind the AIProvider interface (Gemini)
- prompts/: prompt templates for text and image extraction

Flow:
=====
1. User sends "Lunch with Ken tomorrow 12:30" (or a flyer photo)
2. ExtractionService builds the prompt with the current local time
3. GeminiProvider returns JSON: {"schedules": [...]}
4. ExtractionService validates each candidate into ScheduleCandidate
"""
