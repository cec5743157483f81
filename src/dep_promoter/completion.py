"""
Shell completion scripts.
"""

from typing import Dict


def get_bash_completion() -> str:
    """Bash completion script."""
    return """
# Bash completion for dep-promoter
_dep_promoter_completion() {
    local cur prev opts
    COMPREPLY=()
    cur="${COMP_WORDS[COMP_CWORD]}"
    prev="${COMP_WORDS[COMP_CWORD-1]}"

    if [[ ${COMP_CWORD} == 1 ]]; then
        opts="promote plan info config completion --version --help"
        COMPREPLY=( $(compgen -W "${opts}" -- ${cur}) )
        return 0
    fi

    if [[ "${COMP_WORDS[1]}" == "config" && ${COMP_CWORD} == 2 ]]; then
        opts="init show validate"
        COMPREPLY=( $(compgen -W "${opts}" -- ${cur}) )
        return 0
    fi

    if [[ "${COMP_WORDS[1]}" == "completion" && ${COMP_CWORD} == 2 ]]; then
        COMPREPLY=( $(compgen -W "bash zsh fish" -- ${cur}) )
        return 0
    fi

    if [[ "${COMP_WORDS[1]}" == "promote" || "${COMP_WORDS[1]}" == "plan" ]]; then
        case "${prev}" in
            --workspace-root|-w)
                COMPREPLY=( $(compgen -d -- ${cur}) )
                return 0
                ;;
            --output-file|-o)
                COMPREPLY=( $(compgen -f -- ${cur}) )
                return 0
                ;;
            --output-format)
                COMPREPLY=( $(compgen -W "console json" -- ${cur}) )
                return 0
                ;;
            *)
                opts="--workspace-root --min-occurrences --output-format --output-file --quiet --verbose --dry-run"
                COMPREPLY=( $(compgen -W "${opts}" -- ${cur}) )
                return 0
                ;;
        esac
    fi
}

complete -F _dep_promoter_completion dep-promoter
"""


def get_zsh_completion() -> str:
    """Zsh completion script."""
    return """
#compdef dep-promoter

_dep_promoter() {
    local context state state_descr line
    typeset -A opt_args

    _arguments -C \\
        '1: :_dep_promoter_commands' \\
        '*:: :->args'

    case $state in
        args)
            case $words[1] in
                promote|plan)
                    _arguments \\
                        '--workspace-root[Path to workspace root]:directory:_directories' \\
                        '--min-occurrences[Minimum members sharing a dependency]:count:(2 3 4 5)' \\
                        '--output-format[Output format]:format:(console json)' \\
                        '--output-file[Save JSON plan to file]:file:_files' \\
                        '--quiet[Suppress all output]' \\
                        '--verbose[Show every planned entry]' \\
                        '--dry-run[Plan without writing manifests]'
                    ;;
                config)
                    _arguments '1: :(init show validate)'
                    ;;
                completion)
                    _arguments '1: :(bash zsh fish)'
                    ;;
            esac
            ;;
    esac
}

_dep_promoter_commands() {
    local commands
    commands=(
        'promote:Promote shared dependencies to the workspace'
        'plan:Show the promotion plan without writing'
        'info:Show usage information'
        'config:Configuration management commands'
        'completion:Print shell completion script'
    )
    _describe 'command' commands
}

_dep_promoter "$@"
"""


def get_fish_completion() -> str:
    """Fish completion script."""
    return """
# Fish completion for dep-promoter

complete -c dep-promoter -n '__fish_use_subcommand' -a 'promote' -d 'Promote shared dependencies'
complete -c dep-promoter -n '__fish_use_subcommand' -a 'plan' -d 'Show the promotion plan'
complete -c dep-promoter -n '__fish_use_subcommand' -a 'info' -d 'Show information'
complete -c dep-promoter -n '__fish_use_subcommand' -a 'config' -d 'Configuration management'
complete -c dep-promoter -n '__fish_use_subcommand' -a 'completion' -d 'Shell completion script'
complete -c dep-promoter -n '__fish_use_subcommand' -l version -d 'Show version'
complete -c dep-promoter -n '__fish_use_subcommand' -l help -d 'Show help'

complete -c dep-promoter -n '__fish_seen_subcommand_from promote plan' -l workspace-root -d 'Workspace root' -x -a "(__fish_complete_directories)"
complete -c dep-promoter -n '__fish_seen_subcommand_from promote plan' -l min-occurrences -d 'Minimum occurrences' -x
complete -c dep-promoter -n '__fish_seen_subcommand_from promote plan' -l output-format -d 'Output format' -x -a 'console json'
complete -c dep-promoter -n '__fish_seen_subcommand_from promote plan' -l output-file -d 'Output file' -F
complete -c dep-promoter -n '__fish_seen_subcommand_from promote plan' -l quiet -d 'Quiet mode'
complete -c dep-promoter -n '__fish_seen_subcommand_from promote plan' -l verbose -d 'Verbose mode'
complete -c dep-promoter -n '__fish_seen_subcommand_from promote' -l dry-run -d 'Do not write manifests'

complete -c dep-promoter -n '__fish_seen_subcommand_from config' -a 'init' -d 'Create sample config'
complete -c dep-promoter -n '__fish_seen_subcommand_from config' -a 'show' -d 'Show current config'
complete -c dep-promoter -n '__fish_seen_subcommand_from config' -a 'validate' -d 'Validate config file'

complete -c dep-promoter -n '__fish_seen_subcommand_from completion' -a 'bash zsh fish'
"""


def get_completion_scripts() -> Dict[str, str]:
    """Return all completion scripts."""
    return {
        "bash": get_bash_completion(),
        "zsh": get_zsh_completion(),
        "fish": get_fish_completion(),
    }
