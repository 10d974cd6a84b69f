import pytest

from scripts.trigger_sync import SYNC_TYPES_BY_TARGET, main


@pytest.mark.parametrize(
    "argv",
    [
        ["shop", "--account", "acc-1", "--type", "videos"],
        ["all-shops", "--type", "user"],
        ["tiktok", "--account", "acc-1", "--type", "orders"],
    ],
)
def test_type_not_valid_for_target_is_a_usage_error(argv, capsys):
    with pytest.raises(SystemExit) as info:
        main(argv)

    assert info.value.code == 2
    assert "is not valid for" in capsys.readouterr().err


def test_missing_account_is_a_usage_error(capsys):
    with pytest.raises(SystemExit):
        main(["tiktok", "--type", "videos"])

    assert "--account is required" in capsys.readouterr().err


def test_shop_targets_accept_every_shop_sync_type():
    assert set(SYNC_TYPES_BY_TARGET["shop"]) == {"all", "orders", "products", "settlements", "performance"}
    assert SYNC_TYPES_BY_TARGET["tiktok"] == ("all", "user", "videos")
