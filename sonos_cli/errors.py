UPNP_ERRORS = {
    401: "Invalid action",
    402: "Invalid arguments",
    501: "Action failed",
    701: "Transition not available",
    702: "No contents",
    711: "Illegal seek target",
    712: "Play mode not supported",
    714: "Illegal MIME-type",
    718: "Invalid InstanceID",
    800: "Command not supported or not a coordinator",
}


class SonosError(Exception):
    """Raised when a speaker rejects or fails to answer a request."""

    def __init__(self, message, error_code=None):
        if error_code is not None:
            description = UPNP_ERRORS.get(error_code)
            if description:
                message = f"{message} (UPnP error {error_code}: {description})"
            else:
                message = f"{message} (UPnP error {error_code})"
        super().__init__(message)
        self.error_code = error_code
