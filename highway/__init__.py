"""
highway — Lockstep multi-rank highway simulation
================================================

Each rank owns one agent; the :class:`~highway.sync_manager.SyncManager`
advances it, exchanges its state with every peer through the
:mod:`syncbus` coordinator and feeds the peers back to its brain.

Modules
-------
geometry, path
    Poses, angles, paths, path sets and closest-point tracking.
policy, controllers
    Gains and the PID / steering / adaptive speed loops.
driver, brain
    Single- and multi-path ACC drivers; the brain firing path switches.
vehicle, terrain
    Kinematic vehicle handle and the flat rigid ground it drives on.
agent, sync_manager
    Vehicle / environment agents, the clock, and the lockstep manager.
scenario, runner
    The highway demo and its threaded / multi-process launchers.
"""
