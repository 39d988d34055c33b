"""
examguard

Proctored multiple-choice exams: a FastAPI service that aggregates integrity
violations and gates exam attempts, and an asyncio proctoring agent
(``examguard.proctor``) that turns camera, microphone and browser signals into
debounced violation reports.
"""

__version__ = "1.0.0"
