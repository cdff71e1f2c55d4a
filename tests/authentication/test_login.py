import pytest

from cmbump.clients import piggybacking
from cmbump.structs.credentials import ConnectionInfo, LoginError


def test_service_account_is_preferred(mocker, logger):
    sa_info = ConnectionInfo(server='https://sa')
    kc_info = ConnectionInfo(server='https://kc')
    mocker.patch.object(piggybacking, 'login_with_service_account', return_value=sa_info)
    kc_mock = mocker.patch.object(piggybacking, 'login_with_kubeconfig', return_value=kc_info)
    info = piggybacking.login(logger=logger)
    assert info is sa_info
    assert not kc_mock.called


def test_kubeconfig_is_a_fallback(mocker, logger):
    kc_info = ConnectionInfo(server='https://kc')
    mocker.patch.object(piggybacking, 'login_with_service_account', return_value=None)
    mocker.patch.object(piggybacking, 'login_with_kubeconfig', return_value=kc_info)
    info = piggybacking.login(logger=logger)
    assert info is kc_info


def test_no_credentials_fail(mocker, logger):
    mocker.patch.object(piggybacking, 'login_with_service_account', return_value=None)
    mocker.patch.object(piggybacking, 'login_with_kubeconfig', return_value=None)
    with pytest.raises(LoginError):
        piggybacking.login(logger=logger)


@pytest.mark.parametrize('original', [None, True, False])
@pytest.mark.parametrize('insecure', [True, False])
def test_insecure_overrides_the_source(mocker, logger, original, insecure):
    kc_info = ConnectionInfo(server='https://kc', insecure=original, token='tkn')
    mocker.patch.object(piggybacking, 'login_with_service_account', return_value=None)
    mocker.patch.object(piggybacking, 'login_with_kubeconfig', return_value=kc_info)
    info = piggybacking.login(logger=logger, insecure=insecure)
    assert info.insecure is insecure
    assert info.token == 'tkn'
    assert info.server == 'https://kc'


@pytest.mark.parametrize('original', [None, True, False])
def test_insecure_is_kept_by_default(mocker, logger, original):
    kc_info = ConnectionInfo(server='https://kc', insecure=original)
    mocker.patch.object(piggybacking, 'login_with_service_account', return_value=None)
    mocker.patch.object(piggybacking, 'login_with_kubeconfig', return_value=kc_info)
    info = piggybacking.login(logger=logger)
    assert info.insecure is original
