"""
Referral bot - core package

- database: engine lifecycle + persistence gateway
- conversation: per-chat dialogue state and the engine base class
- errors: error taxonomy
- filters / middleware: aiogram routing helpers
- constants / helpers: labels, messages and small pure utilities
"""
