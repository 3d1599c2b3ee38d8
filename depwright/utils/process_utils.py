"""Process utilities."""
from typing import Optional

import psutil
from loguru import logger


class ProcessUtils:
    """Utility class for process management."""

    @staticmethod
    def kill_process_tree(pid: Optional[int]) -> None:
        """
        Kill a process and all its children.

        Shell-spawned commands run their real work in child processes, so
        killing only the shell would leave installers running.

        Args:
            pid: Process ID to kill
        """
        if pid is None:
            return

        try:
            parent = psutil.Process(pid)
            children = parent.children(recursive=True)

            # Kill children first
            for child in children:
                try:
                    child.kill()
                except psutil.NoSuchProcess:
                    pass  # Already dead
                except psutil.AccessDenied:
                    logger.warning(f"Access denied killing child process {child.pid}")

            # Kill parent
            try:
                parent.kill()
            except psutil.NoSuchProcess:
                pass  # Already dead
            except psutil.AccessDenied:
                logger.warning(f"Access denied killing process {pid}")
        except psutil.NoSuchProcess:
            pass  # Process already dead
        except (psutil.AccessDenied, OSError) as e:
            logger.warning(f"Error killing process tree {pid}: {e}")
