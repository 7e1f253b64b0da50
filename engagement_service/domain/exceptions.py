"""
Domain exceptions raised by repositories
"""


class TargetNotFoundError(Exception):
    """The post does not exist (or was deleted while a toggle was in flight)"""

    def __init__(self, target_id: str):
        super().__init__(f"Post {target_id} not found")
        self.target_id = target_id
