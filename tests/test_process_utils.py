from unittest.mock import MagicMock, patch

import psutil

from depwright.utils.process_utils import ProcessUtils


class TestProcessUtils:
    @patch("psutil.Process")
    def test_kill_process_tree(self, mock_process_cls):
        """Test children are killed before the parent."""
        child = MagicMock()
        parent = MagicMock()
        parent.children.return_value = [child]
        mock_process_cls.return_value = parent

        calls = []
        child.kill.side_effect = lambda: calls.append("child")
        parent.kill.side_effect = lambda: calls.append("parent")

        ProcessUtils.kill_process_tree(1234)

        parent.children.assert_called_once_with(recursive=True)
        assert calls == ["child", "parent"]

    @patch("psutil.Process", side_effect=psutil.NoSuchProcess(1234))
    def test_kill_missing_process(self, mock_process_cls):
        """Test an already exited process is ignored."""
        ProcessUtils.kill_process_tree(1234)

    @patch("psutil.Process")
    def test_kill_child_already_dead(self, mock_process_cls):
        """Test a vanished child does not stop the parent kill."""
        child = MagicMock()
        child.kill.side_effect = psutil.NoSuchProcess(99)
        parent = MagicMock()
        parent.children.return_value = [child]
        mock_process_cls.return_value = parent

        ProcessUtils.kill_process_tree(1234)
        parent.kill.assert_called_once()

    def test_kill_none(self):
        """Test a None pid is a no-op."""
        ProcessUtils.kill_process_tree(None)
