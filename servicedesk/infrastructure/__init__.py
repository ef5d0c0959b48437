"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Database engine and session management
- Timezone-aware column types
"""
