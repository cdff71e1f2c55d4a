def test_help_in_root(invoke):
    result = invoke(['--help'])

    assert result.exit_code == 0
    assert 'Usage: cmbump [OPTIONS]' in result.output
    assert '  run ' in result.output


def test_help_in_subcommand(invoke, real_run):
    result = invoke(['run', '--help'])

    assert result.exit_code == 0
    assert not real_run.called

    # Enough to be sure this is not a root command help.
    assert 'Usage: cmbump run [OPTIONS]' in result.output
    assert '  -d, --dir' in result.output
    assert '  -n, --namespace' in result.output
    assert '  -l, --labels' in result.output
    assert '  -s, --signal' in result.output
