"""Tests for config models and the YAML-backed store."""

from __future__ import annotations

import os
import stat

import pytest
import yaml

from chainz.config.schema import ChainDefinition, ChainzConfig
from chainz.config.store import ConfigStore, default_config_path
from chainz.errors import InputError, PersistenceError
from chainz.vault.models import EncryptedSecret, ExternalReference, PlainSecret

_DOC = {
    "version": 1,
    "variables": {"INFURA_API_KEY": "abc", "PORT": 8545},
    "keys": {
        "default": {"type": "PrivateKey", "value": "0x01"},
        "deployer": {"name": "deployer", "type": "EncryptedKey", "value": "Y3Q=", "nonce": "bg=="},
    },
    "chains": [
        {
            "name": "ethereum",
            "chain_id": 1,
            "rpc_urls": ["https://mainnet.infura.io/v3/${INFURA_API_KEY}", " ", "https://eth.example"],
        },
        {"name": "polygon", "chain_id": 137, "rpc_urls": ["https://polygon.example"]},
    ],
}


def _write(tmp_path, doc):
    path = tmp_path / "chainz.yaml"
    path.write_text(yaml.safe_dump(doc))
    return str(path)


# ── Schema ───────────────────────────────────────────────────────────────


class TestChainzConfig:
    def test_parse(self):
        config = ChainzConfig.model_validate(_DOC)
        assert config.version == "1"
        assert config.variables == {"INFURA_API_KEY": "abc", "PORT": "8545"}
        assert isinstance(config.keys["default"], PlainSecret)
        assert config.keys["default"].name == "default"
        assert isinstance(config.keys["deployer"], EncryptedSecret)
        assert config.chains[0].rpc_urls == [
            "https://mainnet.infura.io/v3/${INFURA_API_KEY}",
            "https://eth.example",
        ]
        assert config.chains[0].key_name == "default"

    def test_find_chain_by_name_or_id(self):
        config = ChainzConfig.model_validate(_DOC)
        assert config.find_chain("polygon").chain_id == 137
        assert config.find_chain("137").name == "polygon"
        assert config.find_chain(1).name == "ethereum"

    def test_find_chain_missing(self):
        with pytest.raises(InputError, match="not found"):
            ChainzConfig.model_validate(_DOC).find_chain("base")

    def test_duplicate_chain_names(self):
        doc = dict(_DOC, chains=[_DOC["chains"][1], _DOC["chains"][1]])
        with pytest.raises(ValueError, match="Duplicate"):
            ChainzConfig.model_validate(doc)

    def test_key_name_mismatch(self):
        doc = dict(_DOC, keys={"a": {"name": "b", "type": "PrivateKey", "value": "x"}})
        with pytest.raises(ValueError):
            ChainzConfig.model_validate(doc)

    def test_endpoint_set(self):
        chain = ChainDefinition(name="x", chain_id=5, rpc_urls=["a", "b"], selected_rpc="b")
        endpoints = chain.endpoint_set()
        assert endpoints.candidates == ("a", "b")
        assert endpoints.network_id == 5
        assert endpoints.last_known_good == "b"

    def test_endpoint_set_requires_urls(self):
        with pytest.raises(InputError, match="No RPC URLs"):
            ChainDefinition(name="x", chain_id=5).endpoint_set()

    def test_document_uses_disk_names(self):
        doc = ChainzConfig.model_validate(_DOC).to_document()
        assert doc["keys"]["deployer"] == {
            "name": "deployer",
            "type": "EncryptedKey",
            "value": "Y3Q=",
            "nonce": "bg==",
        }
        assert doc["chains"][1]["selected_rpc"] is None


# ── Load / save ──────────────────────────────────────────────────────────


class TestLoadSave:
    def test_missing_file_is_empty(self, tmp_path):
        store = ConfigStore.load(str(tmp_path / "nope.yaml"))
        assert store.list_chains() == []
        assert store.list_keys() == []

    def test_missing_file_strict(self, tmp_path):
        with pytest.raises(PersistenceError):
            ConfigStore.load(str(tmp_path / "nope.yaml"), missing_ok=False)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ConfigStore.load(str(path)).config.chains == []

    def test_round_trip(self, tmp_path):
        path = _write(tmp_path, _DOC)
        store = ConfigStore.load(path)
        store.config.chains[0].selected_rpc = "https://eth.example"
        store.save()

        reloaded = ConfigStore.load(path)
        assert reloaded.get_chain("ethereum").selected_rpc == "https://eth.example"
        assert reloaded.config.keys == store.config.keys
        assert reloaded.list_variables() == {"INFURA_API_KEY": "abc", "PORT": "8545"}

    def test_saved_file_is_owner_only(self, tmp_path):
        store = ConfigStore(str(tmp_path / "sub" / "c.yaml"))
        store.save()
        mode = stat.S_IMODE(os.stat(store.path).st_mode)
        assert mode == 0o600

    def test_save_leaves_no_temp_files(self, tmp_path):
        store = ConfigStore(str(tmp_path / "c.yaml"))
        store.save()
        store.save()
        assert os.listdir(tmp_path) == ["c.yaml"]

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("chains: [unclosed\n")
        with pytest.raises(InputError, match="parsing"):
            ConfigStore.load(str(path))

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(InputError, match="mapping"):
            ConfigStore.load(str(path))

    def test_validation_errors_are_collected(self, tmp_path):
        doc = {
            "chains": [{"name": "x", "chain_id": -1}],
            "keys": {"k": {"type": "Unknown"}},
        }
        with pytest.raises(InputError, match=r"2 error\(s\)"):
            ConfigStore.load(_write(tmp_path, doc))

    def test_env_var_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CHAINZ_CONFIG", str(tmp_path / "env.yaml"))
        assert default_config_path() == str(tmp_path / "env.yaml")
        assert ConfigStore().path == str(tmp_path / "env.yaml")


# ── Mutations ────────────────────────────────────────────────────────────


class TestMutations:
    def _store(self):
        return ConfigStore("unused.yaml", ChainzConfig.model_validate(_DOC))

    def test_add_chain_upserts(self):
        store = self._store()
        store.add_chain(ChainDefinition(name="polygon", chain_id=137, rpc_urls=["https://new"]))
        assert len(store.list_chains()) == 2
        assert store.get_chain("polygon").rpc_urls == ["https://new"]
        store.add_chain(ChainDefinition(name="base", chain_id=8453, rpc_urls=["https://base"]))
        assert store.get_chain(8453).name == "base"

    def test_remove_chain(self):
        store = self._store()
        assert store.remove_chain("polygon").chain_id == 137
        with pytest.raises(InputError):
            store.remove_chain("polygon")

    def test_add_key(self):
        store = self._store()
        store.add_key(ExternalReference(name="op", vault="v", item="i"))
        assert [k.name for k in store.list_keys()] == ["default", "deployer", "op"]

    def test_add_existing_key(self):
        store = self._store()
        secret = PlainSecret(name="default", value="0x02")
        with pytest.raises(InputError, match="already exists"):
            store.add_key(secret)
        store.add_key(secret, overwrite=True)
        assert store.get_key("default").value == "0x02"

    def test_remove_key_in_use(self):
        with pytest.raises(InputError, match="ethereum, polygon"):
            self._store().remove_key("default")

    def test_remove_key(self):
        store = self._store()
        store.remove_key("deployer")
        with pytest.raises(InputError, match="not found"):
            store.get_key("deployer")

    def test_variables(self):
        store = self._store()
        store.set_variable("ALCHEMY", "xyz")
        assert store.get_variable("ALCHEMY") == "xyz"
        assert list(store.list_variables()) == ["ALCHEMY", "INFURA_API_KEY", "PORT"]
        store.remove_variable("ALCHEMY")
        assert store.get_variable("ALCHEMY") is None
        with pytest.raises(InputError):
            store.remove_variable("ALCHEMY")
