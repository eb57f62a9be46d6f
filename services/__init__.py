"""
services package: the conversation engines and the capabilities they use
(referral codes, notifications, error capture).
"""
