class SteeringError(Exception):
    """Base class for errors raised by the steering and consistency engines."""

    error_type = "steering_error"
    retryable = False


class ConfigurationError(SteeringError, ValueError):
    """An engine option is out of range; raised when the config is built."""

    error_type = "configuration_error"


class NodeNotFoundError(SteeringError, LookupError):
    """The requested target object is not part of the supplied node set."""

    error_type = "not_found"

    def __init__(self, node_id: str):
        super().__init__(f"Object {node_id} not found")
        self.node_id = node_id


class StoreError(SteeringError):
    error_type = "store_error"


class UpstreamReadError(StoreError):
    """The persistence collaborator could not return nodes, edges or history."""

    error_type = "upstream_read_failure"
    retryable = True


class UpstreamWriteError(StoreError):
    error_type = "upstream_write_failure"
    retryable = True


class AlertNotFoundError(SteeringError, LookupError):
    error_type = "not_found"

    def __init__(self, alert_id: str):
        super().__init__(f"Alert {alert_id} not found")
        self.alert_id = alert_id


class RelationNotFoundError(SteeringError, LookupError):
    error_type = "not_found"

    def __init__(self, relation_id: str):
        super().__init__(f"Correlation {relation_id} not found")
        self.relation_id = relation_id
