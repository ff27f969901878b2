"""
Services package.

Async orchestration and narration around the combat engine.
"""
