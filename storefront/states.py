"""
Conversation states and handler groups for the Telegram bot.
"""

from telegram.ext import ConversationHandler

# Auth states
LOGIN_EMAIL = 1
LOGIN_PASSWORD = 2
REGISTER_EMAIL = 3
REGISTER_PASSWORD = 4
REGISTER_FIRST_NAME = 5
REGISTER_LAST_NAME = 6

# Catalog states
SEARCH_QUERY = 10
REVIEW_RATING = 11
REVIEW_COMMENT = 12

# Checkout states
CHECKOUT_SHIPPING = 20
CHECKOUT_PAYMENT = 21
CHECKOUT_CARD = 22
CHECKOUT_REVIEW = 23

# Profile states
PROFILE_EDIT_VALUE = 30
ADDRESS_FIELD = 31
PASSWORD_CURRENT = 32
PASSWORD_NEW = 33
PASSWORD_CONFIRM = 34

# Admin states
ADMIN_PRODUCT_FIELD = 40
ADMIN_EDIT_VALUE = 41

# End conversation
END = ConversationHandler.END

# Handler groups: plain handlers stay in group 0, each conversation runs
# in its own group ahead of them
LOGIN_GROUP = -1
REGISTER_GROUP = -2
SEARCH_GROUP = -3
REVIEW_GROUP = -4
CHECKOUT_GROUP = -5
PROFILE_EDIT_GROUP = -6
ADDRESS_GROUP = -7
PASSWORD_GROUP = -8
ADMIN_EDIT_GROUP = -9
ADMIN_PRODUCT_GROUP = -10
