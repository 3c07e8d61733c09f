import pytest

from src.client.enroll.tests.ca_helpers import MockCA, create_ca


@pytest.fixture
def ca():
    """测试用自签 CA：(ca_key, ca_cert)。"""
    return create_ca()


@pytest.fixture
def mock_ca():
    """工厂 fixture：mock_ca(handler) 启动模拟 CA，测试结束时关闭。"""
    servers: list[MockCA] = []

    def _start(handler):
        server = MockCA(handler)
        servers.append(server)
        return server

    yield _start
    for server in servers:
        server.close()
