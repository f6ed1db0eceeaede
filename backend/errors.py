# backend/errors.py


class EditError(Exception):
    """
    Base class for every condition the edit session recovers from.
    `message` is the text shown to the user in `last_error`.
    """

    message = "Something went wrong."

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class SizeExceeded(EditError):
    message = "File size too large. Please select an image under 4MB."


class DecodeError(EditError):
    message = "Failed to load image."


class ModelRefusal(EditError):
    """The model answered with text only. The text itself is the message."""


class NoImageProduced(EditError):
    message = "The model did not return an image. Try a different prompt."


class RequestFailure(EditError):
    message = "Failed to generate image. Please try again."


class SessionBusy(EditError):
    message = "An edit is already in progress. Please wait for it to finish."
