"""Fixed phrases spoken or matched during a call."""

# Phrase the model is instructed to say when the caller must be handed to a human
TRANSFER_TRIGGER_PHRASE = "Transferring to Yello customer service team"

# Reply used whenever the AI backend fails
FALLBACK_REPLY = "I am having trouble right now"

NOT_CONFIGURED_MESSAGE = "AI service not configured"
ERROR_MESSAGE = "An error occurred"

WELCOME_MESSAGE = "Welcome To Yello Rewards"
LISTEN_PROMPT = "How may I help you today?"
REENGAGE_PROMPT = "I would be happy to assist you today. How may I help you?"
NO_INPUT_GOODBYE = "I did not hear anything for a while. Thank you for calling. Goodbye!"
GOODBYE_MESSAGE = "Thank you for calling. Goodbye!"

TRANSFER_NOTICE = "I'll transfer you to our customer service team now. Please hold."
TRANSFER_FAILED_MESSAGE = (
    "Sorry, I was unable to connect you. "
    "Please try calling our customer service directly at {number}."
)

# Dial outcomes reported to /transfer-status
TRANSFER_BUSY_MESSAGE = (
    "Our customer service line is currently busy. "
    "Please try calling back in a few minutes, or call us directly at {number}."
)
TRANSFER_NO_ANSWER_MESSAGE = (
    "Our customer service team is not available right now. "
    "Please call us directly at {number} or try again later."
)
TRANSFER_UNABLE_MESSAGE = (
    "I was unable to transfer your call. "
    "Please call our customer service directly at {number}."
)
TRANSFER_DEFAULT_MESSAGE = (
    "Thank you for calling. If you need further assistance, please call {number}."
)
