import shutil
from logging import getLogger

logger = getLogger(__name__)


class GuardStack:
    """Ordered cleanup actions collected during setup and run once on teardown.

    Each action is a zero-argument callable closing over the state it has to
    undo. Actions run in registration order; a failing action is logged and
    the remaining ones still run.
    """

    def __init__(self):
        self._actions = []

    def __len__(self):
        return len(self._actions)

    def register(self, action, name=None):
        self._actions.append((name or getattr(action, '__name__', 'guard'), action))
        return action

    def remove_tree(self, path):
        """Register deletion of directory `path` (missing directory is fine)."""
        def remove():
            shutil.rmtree(path, ignore_errors=True)
        return self.register(remove, name=f'remove {path}')

    def run_all(self):
        actions, self._actions = self._actions, []
        for name, action in actions:
            logger.debug(f'running guard: {name}')
            try:
                action()
            except Exception as e:
                logger.warning(f'guard {name} failed: {e}')
