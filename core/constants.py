"""
core/constants.py

Button labels, payment rails and reusable messages for the referral bot.
"""

# ---------------------------
# Emojis
# ---------------------------
EMOJI = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "money": "💰",
    "payout": "💸",
    "party": "🎉",
    "list": "📋",
    "users": "👥",
    "account": "👤",
}

# ---------------------------
# Reply keyboard labels
# ---------------------------
BTN_CANCEL = "✖️ Cancel"

BTN_MY_ACCOUNT = "👤 My Account"
BTN_UPDATE = "🔄 Update"
BTN_HOW_IT_WORKS = "❓ How it Works"
BTN_WITHDRAW = "💵 Withdraw"

BTN_NEW_REFERRAL = "➕ Start New Referral"
BTN_VIEW_REFERRALS = "📋 View All Referrals"
BTN_UPDATE_STATUS = "🔄 Update Status"
BTN_PAYOUT = "💸 Payout"
BTN_VIEW_USERS = "👥 View All Users"

CB_ADD_PAYMENT_METHOD = "add_payment_method"

SKIP_KEYWORD = "skip"

# code -> payment rail
PAYMENT_METHODS = {
    "TE": "Telebirr",
    "CB": "Commercial Bank of Ethiopia",
}

# ---------------------------
# Messages
# ---------------------------
MESSAGES = {
    "error_generic": f"{EMOJI['error']} Sorry, something went wrong. Please try again later.",
    "busy": f"{EMOJI['warning']} Please finish the current action or press {BTN_CANCEL} first.",
    "not_registered": "You are not registered yet. Send /start to join the referral program.",
    "user_cancelled": "Action cancelled.",
    "admin_cancelled": "Operation cancelled.",
}


def t(key: str) -> str:
    """Fetch a message with a visible fallback for missing keys"""
    return MESSAGES.get(key, f"[missing:{key}]")
