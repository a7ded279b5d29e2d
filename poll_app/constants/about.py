"""Static metadata describing the poll server."""

APP_NAME = "Predict the People"
APP_VERSION = "0.1.0"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "Predict the People publishes one question a day. Vote for your own answer, guess what the "
    "majority picked, and come back tomorrow to see whether you read the crowd right."
)
