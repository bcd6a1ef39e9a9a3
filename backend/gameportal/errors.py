class PortalError(Exception):
    """Base class for errors raised by the stats core."""

    status_code = 400


class PlayerNotFound(PortalError):
    status_code = 404

    def __init__(self, player_id):
        super().__init__('Player not found')
        self.player_id = player_id


class InvalidScore(PortalError):
    pass


class InvalidArgument(PortalError):
    pass


class PersistenceFailure(PortalError):
    """The underlying store rejected a read or write."""

    status_code = 500
